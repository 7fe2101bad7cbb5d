cur_version = "0.1.0"
version_prefix = "/api/v1"

"""HTTP API: dependencies, middleware and routers."""

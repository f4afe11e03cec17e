"""HTTP layer: application factory, middleware, error handlers and route discovery."""

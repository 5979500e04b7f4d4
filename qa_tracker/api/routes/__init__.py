"""HTTP route modules, one router per resource."""

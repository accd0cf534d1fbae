# HTTP routers: task and analytics resources (mounted under /api/v1) and health checks

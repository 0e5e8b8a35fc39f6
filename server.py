import uvicorn

from captainhook.config.settings import settings

if __name__ == "__main__":
    # Local run; on a provisioned host systemd starts uvicorn from the venv instead
    uvicorn.run(
        "captainhook.main:app",
        host=settings.bind_ip,
        port=settings.port,
        reload=settings.reload,
        proxy_headers=True,
        access_log=False,      # Use structured logging instead
        server_header=False,   # Hide server info
        date_header=False,
        log_level=settings.log_level.lower()
    )

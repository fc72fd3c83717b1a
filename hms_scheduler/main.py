import uvicorn

from hms_scheduler import config


def main():
    """Run the FastAPI application with uvicorn server."""
    uvicorn.run("hms_scheduler.app:app", host=config.HOST, port=config.PORT, reload=True)


if __name__ == "__main__":
    main()

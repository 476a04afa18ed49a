# backend/main.py
import os

from dotenv import load_dotenv
load_dotenv()

from backend.app import create_app

app = create_app()

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3456


def run(host: str = None, port: int = None) -> None:
    import uvicorn
    uvicorn.run(
        app,
        host=host or os.getenv("HAZE_HOST", DEFAULT_HOST),
        port=port or int(os.getenv("HAZE_PORT", DEFAULT_PORT)),
        log_config=None,
    )


if __name__ == "__main__":
    run()

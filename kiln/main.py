# kiln/main.py
import os

from dotenv import load_dotenv
load_dotenv()

from kiln.app import create_app

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=os.getenv("KILN_HOST", "127.0.0.1"),
        port=int(os.getenv("KILN_PORT", "8000")),
    )

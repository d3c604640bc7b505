# main.py
import os

import uvicorn

# Run the server
if __name__ == "__main__":
    uvicorn.run(
        "idealauncher.app:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "").lower() in ("1", "true"),
    )

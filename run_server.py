import uvicorn
import os

if __name__ == "__main__":
    os.makedirs("data", exist_ok=True)

    print("Starting Pulse Pipeline API Server...")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "backend.api.server:app",
        host=os.environ.get("PULSE_HOST", "0.0.0.0"),
        port=int(os.environ.get("PULSE_PORT", "8000")),
        reload=os.environ.get("PULSE_RELOAD", "") in ("1", "true", "yes"),
    )

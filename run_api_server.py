"""
FastAPI Server Startup Script
Run this to start the QRIS Invoice API server
"""

import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from api_server.config import get_settings


def main():
    """Start the FastAPI server"""
    settings = get_settings()
    host = settings.API_HOST
    port = settings.API_PORT
    development = settings.ENVIRONMENT == "development"

    print(f"🚀 Starting QRIS Invoice API Server...")
    print(f"📍 Server will run on: http://{host}:{port}")
    print(f"📊 API Base URL: http://{host}:{port}/api")
    print(f"📚 API Documentation: http://{host}:{port}/docs")
    print(f"🌍 Environment: {settings.ENVIRONMENT}")

    uvicorn.run(
        "api_server.main:app",
        host=host,
        port=port,
        reload=development,
        log_level="info",
        access_log=True
    )

if __name__ == "__main__":
    main()

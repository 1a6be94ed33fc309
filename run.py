import uvicorn
from gymbook.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "gymbook.main:app",
        host="localhost",
        port=settings.SERVER_PORT,
        reload=True,
        log_level="info",
    )

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "ledger.app:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8001")),
        log_level="info",
    )


if __name__ == "__main__":
    main()

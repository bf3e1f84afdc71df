"""Run the webhook server."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "src.bot.webhook:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()

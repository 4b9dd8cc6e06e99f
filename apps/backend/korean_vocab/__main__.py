import os

import uvicorn


def main() -> None:
    """Run the API with uvicorn; ``PORT`` follows the Cloud Run convention."""

    uvicorn.run(
        "korean_vocab.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()

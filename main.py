import os

import uvicorn


def main():
    uvicorn.run(
        "atlas_gateway.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


if __name__ == "__main__":
    main()

"""Run the API server: ``python -m symbolhub [--host H] [--port P] [--reload]``."""

import argparse
import os

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(prog="symbolhub")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8080")))
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()
    uvicorn.run("symbolhub.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()

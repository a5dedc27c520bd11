#!/usr/bin/env python3
"""Launch the Recipe Generator API server."""
import argparse

if __name__ == "__main__":
    import uvicorn

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--no-reload", action="store_true")
    args = parser.parse_args()

    print("=" * 60)
    print(f"Starting Recipe Generator API on http://{args.host}:{args.port}")
    print("Press Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(
        "recipegen.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
    )

"""Simple server runner that keeps uvicorn alive."""
import uvicorn
import sys
import signal
import os


def handle_signal(sig, frame):
    print(f"\nReceived signal {sig}, shutting down gracefully...")
    sys.exit(0)


def main():
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    print("=" * 50)
    print("  Starting Pharmacy Bot Backend")
    print("=" * 50)
    uvicorn.run(
        "pharmabot.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()

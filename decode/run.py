import uvicorn

from .config import Config


def main() -> None:
    # one worker: rooms live in process memory
    uvicorn.run("decode.main:app", host=Config.HOST, port=Config.PORT, log_level=Config.LOG_LEVEL.lower())


if __name__ == '__main__':
    main()

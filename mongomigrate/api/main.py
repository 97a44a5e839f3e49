import argparse
import os

import uvicorn

from mongomigrate.config import load_log_level
from mongomigrate.log import setup_logging

from .app import create_app


def run() -> None:
    parser = argparse.ArgumentParser(prog='mongo-migrate-api', description='MongoDB migration REST API')
    parser.add_argument('--host', default=os.environ.get('HOST', '0.0.0.0'))
    parser.add_argument('--port', type=int, default=int(os.environ.get('PORT', '5000')))
    parser.add_argument('--config-json', help='file behind /api/config (default: config.json)')
    args = parser.parse_args()

    setup_logging(load_log_level())
    uvicorn.run(create_app(config_path=args.config_json), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    run()

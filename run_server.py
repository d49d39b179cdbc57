#!/usr/bin/env python3
"""Run the patient registry web server."""
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv
load_dotenv()


def main():
    import uvicorn
    from patient_registry.config import get_registry_config, get_server_config

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    server = get_server_config()
    registry = get_registry_config()

    print(f"""
    ╔═══════════════════════════════════════════════════════╗
    ║           Patient Registry Server                     ║
    ╠═══════════════════════════════════════════════════════╣
    ║  URL: http://{server.host}:{server.port:<5}
    ║  API Docs: http://{server.host}:{server.port:<5}/docs
    ║  Database: {registry.db_path}
    ║  Hot Reload: {str(server.reload):<5}
    ╚═══════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "server.app:app",
        host=server.host,
        port=server.port,
        reload=server.reload,
    )


if __name__ == "__main__":
    main()

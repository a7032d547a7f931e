from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from lexigraph_app import create_app, EngineServices
from lexigraph_app.core.logging_config import get_logger
from lexigraph_app.models import MemoryCardStore

# Embedding, generation and rating providers are deployment specific; wire
# them into EngineServices here. Session endpoints answer 503 until they are.
app = create_app(services=EngineServices(repository=MemoryCardStore()))

if __name__ == '__main__':
    import sys
    import asyncio

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    get_logger().info("Starting Lexigraph development server")
    app.run(host='0.0.0.0', port=5000, debug=True)

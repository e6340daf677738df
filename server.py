import asyncio
from mcp.server.fastmcp import FastMCP
import tool
import logging
import time
import functools
from logging.handlers import RotatingFileHandler

# ------------------ Log config------------------
logger = logging.getLogger("relay")
logger.setLevel(logging.DEBUG)

# auto rotate log file to prevent it from getting too large
file_handler = RotatingFileHandler(
    "relay_server.log",
    maxBytes=10 * 1024 * 1024,  # 10MB
    backupCount=5,
    encoding="utf-8"
)
file_handler.setLevel(logging.DEBUG)
formatter = logging.Formatter(
    '%(asctime)s | %(levelname)-5s | %(name)s | %(message)s  [pid:%(process)d]'
)
file_handler.setFormatter(formatter)
logger.addHandler(file_handler)

# console log (info level and above)
console_handler = logging.StreamHandler()
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(formatter)
logger.addHandler(console_handler)


def logged_tool(tool_func):
    """Automatically add timing and outcome logging for each tool"""
    tool_name = tool_func.__name__
    is_async = asyncio.iscoroutinefunction(tool_func)

    @functools.wraps(tool_func)
    async def wrapper(**kwargs):
        start_time = time.time()

        # only argument names are logged; conversations may hold private content
        logger.info(f"Tool call starting → {tool_name} | Args: {sorted(kwargs)} | Category: {'async' if is_async else 'sync'}")

        try:
            if is_async:
                result = await tool_func(**kwargs)
            else:
                result = tool_func(**kwargs)

            duration = time.time() - start_time
            status = result.get("status") if isinstance(result, dict) else type(result).__name__

            logger.info(
                f"Done ← {tool_name} | Category: {'async' if is_async else 'sync'} | "
                f"Time Consumed: {duration:.3f}s | Status: {status}")
            return result

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Failed ← {tool_name} | Category: {'async' if is_async else 'sync'} | "
                f"Time Consumed: {duration:.3f}s | Error: {str(e)}",
                exc_info=True  # Print full stack trace
            )
            raise

    return wrapper


mcp = FastMCP(name="ModelRelay")

mcp.add_tool(logged_tool(tool.generate_text))


def main() -> None:
    logger.info("MCP Server Starting...")
    mcp.run()


if __name__ == "__main__":  # fastmcp run server.py:mcp --transport http --host 0.0.0.0 --port 8000
    main()

import asyncio
from concurrent.futures import ThreadPoolExecutor

IO_POOL_VAL = ThreadPoolExecutor(max_workers=8)


def run_sync(func, *args, **kwargs):
    """
    Run blocking / IO-heavy code off the current event loop.
    This is crucial for:
    - Pinecone control plane calls and their polling loops
    - Embedding + upsert batches
    - Groq LLM calls (LangChain)
    - PDF / Word parsing
    """
    loop = asyncio.get_running_loop()
    return loop.run_in_executor(IO_POOL_VAL, lambda: func(*args, **kwargs))

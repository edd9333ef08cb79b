"""
Minimal application wiring with stagedi.

Run:
    python examples/basic_app.py

Inspect:
    stagedi stages examples.basic_app:container
"""

import asyncio
import logging

from stagedi import Container, Settings

container = Container(settings=Settings.load())


@container.provides()
def make_config():
    return {"db_url": "sqlite:///:memory:", "cache_size": 128}


@container.provides(deps=["config"])
async def make_db(deps):
    await asyncio.sleep(0.01)
    return f"Database({deps['config']['db_url']})"


@container.provides(deps=["config"])
async def make_cache(deps):
    await asyncio.sleep(0.01)
    return f"Cache(size={deps['config']['cache_size']})"


@container.provides(deps=["db", "cache"])
def make_app(deps):
    return f"App({deps['db']}, {deps['cache']})"


container.register_side_effect(["app"], lambda deps: print(f"started {deps['app']}"))


async def main():
    modules = await container.start()
    for name, value in modules.items():
        print(f"{name:>8}: {value}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    container.settings.configure_logging()
    asyncio.run(main())

import argparse
import asyncio
import json

from danmu_api.scraper_manager import ScraperManager


async def main(args):
    # 1. 创建 ScraperManager 实例
    scraper_manager = ScraperManager()

    try:
        if args.command == "search":
            # 2. 在所有弹幕源上搜索
            results = await scraper_manager.search_all(args.keyword)
            print(f"找到 {len(results)} 个结果:")
            for media in results:
                print(f"- 提供方: {media.provider}, 标题: {media.title}, 分集数: {len(media.episodes)}")
                for ep in media.episodes:
                    print(f"    {media.provider}:{ep.id}  [{ep.ordinal}] {ep.title}")
        else:
            # 3. 获取弹幕，id 格式为 provider:episodeId
            provider, _, episode_id = args.id.partition(":")
            scraper = scraper_manager.get_scraper(provider)
            danmaku = await scraper.fetch_danmaku(episode_id)
            print(json.dumps([d.model_dump() for d in danmaku], ensure_ascii=False, indent=2))
    finally:
        # 4. 清理资源
        await scraper_manager.close_all()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="不启动服务器，直接搜索或获取弹幕")
    subparsers = parser.add_subparsers(dest="command", required=True)
    search_parser = subparsers.add_parser("search", help="搜索媒体")
    search_parser.add_argument("keyword")
    danmaku_parser = subparsers.add_parser("danmaku", help="获取分集弹幕")
    danmaku_parser.add_argument("id", help="例如 bilibili:785548")
    asyncio.run(main(parser.parse_args()))

"""CLI 入口模块 -- python -m duochat.core <command>

支持的命令：
  rebuild-previews                    按每个会话最新的消息重算会话预览
  add-user <user_id> <display_name>   在用户目录中注册（或重命名）用户
"""

import asyncio
import sys

from .config import get_db_path

_USAGE = """用法: python -m duochat.core <command>
命令:
  rebuild-previews                    按最新消息重算会话预览
  add-user <user_id> <display_name>   注册或重命名用户"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "rebuild-previews":
        asyncio.run(rebuild_previews())
    elif command == "add-user":
        if len(sys.argv) != 4:
            print(_USAGE)
            sys.exit(1)
        asyncio.run(add_user(sys.argv[2], sys.argv[3]))
    else:
        print(f"未知命令: {command}")
        print("可用命令: rebuild-previews, add-user")
        sys.exit(1)


async def rebuild_previews() -> int:
    """执行会话预览重建"""
    from .projection import rebuild_all
    from .store import create_store_group

    db_path = get_db_path()

    print(f"数据库路径: {db_path}")
    print("开始重建会话预览...")

    store_group = await create_store_group(db_path)

    try:
        count = await rebuild_all(store_group)
        print(f"重建完成，处理 {count} 个会话")
    finally:
        await store_group.conn.close()
    return count


async def add_user(user_id: str, display_name: str) -> None:
    """注册或重命名用户"""
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())

    try:
        async with store_group.transaction():
            await store_group.user_directory.upsert_user(user_id, display_name)
        print(f"用户已保存: {user_id} ({display_name})")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()

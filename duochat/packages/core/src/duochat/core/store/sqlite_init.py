"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# users 表 DDL（用户目录，只承载显示名）
_USERS_DDL = """
CREATE TABLE IF NOT EXISTS users (
    user_id       TEXT PRIMARY KEY,
    display_name  TEXT NOT NULL DEFAULT '',
    created_at    TEXT NOT NULL
);
"""

# conversations 表 DDL
_CONVERSATIONS_DDL = """
CREATE TABLE IF NOT EXISTS conversations (
    conversation_id  TEXT PRIMARY KEY,
    user_low         TEXT NOT NULL,
    user_high        TEXT NOT NULL,
    last_message     TEXT NOT NULL DEFAULT '',
    last_message_at  TEXT NOT NULL,
    created_at       TEXT NOT NULL
);
"""

_CONVERSATIONS_INDEXES = [
    # 每个无序用户对只允许一行（get-or-create 的并发安全依赖此约束）
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_conversations_pair "
        "ON conversations(user_low, user_high);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_conversations_user_high ON conversations(user_high);",
    (
        "CREATE INDEX IF NOT EXISTS idx_conversations_last_message_at "
        "ON conversations(last_message_at DESC);"
    ),
]

# messages 表 DDL
# AUTOINCREMENT 保证 id 单调递增且删除后不复用
_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id     TEXT NOT NULL,
    sender_id           TEXT NOT NULL,
    receiver_id         TEXT NOT NULL,
    text_content        TEXT,
    attachment_url      TEXT,
    attachment_type     TEXT,
    original_file_name  TEXT,
    sent_at             TEXT NOT NULL,
    is_read             INTEGER NOT NULL DEFAULT 0,
    edited_at           TEXT,
    correlation_id      TEXT,

    FOREIGN KEY (conversation_id) REFERENCES conversations(conversation_id)
);
"""

_MESSAGES_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation_sent ON messages(conversation_id, sent_at DESC, id DESC);",
    # 已读标记批量更新 + 未读计数
    "CREATE INDEX IF NOT EXISTS idx_messages_unread ON messages(receiver_id, sender_id, is_read);",
    # 同一发送者的 correlation_id 只能落库一次（客户端重试幂等）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_sender_correlation ON messages(sender_id, correlation_id) WHERE correlation_id IS NOT NULL;",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_USERS_DDL)
    await conn.execute(_CONVERSATIONS_DDL)
    await conn.execute(_MESSAGES_DDL)

    # 创建索引
    for idx_sql in _CONVERSATIONS_INDEXES + _MESSAGES_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"

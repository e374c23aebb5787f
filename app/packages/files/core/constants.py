"""常量定义：集中维护令牌头、分页与缩略图尺寸等固定值。"""

# 请求头中携带会话令牌的字段名
TOKEN_HEADER = "X-Token"

# 根目录哨兵：parent_id 为 0 表示顶层
ROOT_PARENT_ID = 0

# 列表分页固定大小
PAGE_SIZE = 20

# 缩略图宽度（像素），派生文件命名为 ``<local_path>_<width>``
THUMBNAIL_SIZES = (500, 250, 100)

DEFAULT_MIME_TYPE = "application/octet-stream"

"""
命名服務：房間預設名稱、地址縮寫

純計算邏輯，不涉及狀態轉換
"""


def default_room_name(room_id: str) -> str:
    """
    沒有給名稱的房間，用 id 前 8 碼命名

    範例：
        default_room_name("3f2a9c1e-...") -> "Room 3f2a9c1e"
    """
    return f"Room {room_id[:8]}"


def shorten_address(address: str) -> str:
    """
    縮短錢包地址方便顯示

    範例：
        0x1234567890abcdef1234 -> 0x1234...1234

    注意：
    - 10 個字元以下的識別直接原樣返回
    """
    if not address or len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"

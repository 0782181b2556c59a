"""
命名服務：Label 名稱與 Artist 名稱正規化

純計算邏輯，不涉及狀態轉換
"""
from core.exceptions import InvalidArtistName


def generate_label_name(display_name: str) -> str:
    """
    新賽季玩家的預設 label 名稱

    範例：
        generate_label_name("Mina") -> "Mina's Label"
    """
    return f"{display_name}'s Label"


def normalize_artist_name(name: str) -> str:
    """
    去掉前後空白、合併連續空白

    重複檢查用的是正規化後的名稱（大小寫視為不同，與既有資料一致）

    異常：
        InvalidArtistName: 名稱是空的
    """
    normalized = " ".join((name or "").split())
    if not normalized:
        raise InvalidArtistName("Artist name cannot be empty")
    return normalized

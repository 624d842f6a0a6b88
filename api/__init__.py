"""
API 層

這個 package 只負責 HTTP：解析請求、呼叫 RoomManager / services、
把業務異常轉成對應的 HTTP 狀態碼：
- rooms：房間列表、詳情、建立
- players：玩家下注
- settlement：關閉與結算（管理員）
- wallet：餘額、交易紀錄、歷史與統計
"""

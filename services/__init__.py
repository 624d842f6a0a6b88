"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- RoomStatusService：由旗標與結算時間推導房間狀態
- StakeLedger：下注帳本與驗證
- PayoutService：得獎者與獎金計算
- FairnessService：可驗證的抽獎
- WalletService / HistoryService：餘額、交易、歷史紀錄
- NamingService：名稱與地址顯示
"""

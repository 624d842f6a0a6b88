"""
核心業務邏輯層

這個 package 包含房間生命週期的核心邏輯，包括：
- 狀態機：集中管理 OPEN -> CLOSED -> SETTLED 的狀態轉換
- Manager：管理 Room 的建立、下注、關閉與結算
- Locks：並發控制工具
- Exceptions：所有業務異常
"""

"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- RevealService：中獎號碼與派彩計算
- HistoryService：帳戶下注紀錄
"""

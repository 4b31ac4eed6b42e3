"""
HTTP 介面層

只負責請求 / 回應的轉換與錯誤對應，所有遊戲規則都在 core 與 services
"""

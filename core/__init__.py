"""
核心業務邏輯層

這個 package 包含回合生命週期相關的所有狀態與流程：
- GameState：遊戲狀態（帳戶、回合、開獎走勢）
- StateMachine：集中管理回合狀態轉換
- Ledger：帳戶餘額的唯一修改入口
- RoundEngine：單一 writer，序列化所有下注與開獎
- Scheduler：定時送出自動開獎請求
- Persistence：snapshot 存取
"""

"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：Phase Ledger，集中管理賽季 phase 的轉換
- Manager：Season、Draft、Roster Evolution、Advantage、Checkpoint 的操作
- Event Log：記錄所有重要事件
- Locks：並發控制工具
"""

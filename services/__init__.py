"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- TurnOrderService：snake draft 輪次
- EvolutionPhaseService：roster evolution 子狀態機的下一步
- StandingsService：名次與勝利點數
- AwardService：sweep 偵測、advantage 發放規劃、cooldown
- CheckpointService：checkpoint 解析與可用清單
- NamingService：名稱生成與正規化
- DraftHistoryService：選秀紀錄與陣容查詢
"""

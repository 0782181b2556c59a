"""
API 層

FastAPI routers，只負責 request/response 轉換，業務邏輯都在 core/
"""

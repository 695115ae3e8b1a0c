import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gradebook import config
from gradebook.api.calculation_api import router as calculation_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = FastAPI(
    title="成绩册平均分计算服务",
    description="单元平均分、班级平均分及成绩报告API文档",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(calculation_router, prefix="/api/v1/gradebook", tags=["成绩册计算API"])


@app.get("/")
async def root():
    return {
        "message": "成绩册平均分计算服务",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gradebook.main:app", host=config.API_HOST, port=config.API_PORT, reload=False)

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "qrdine"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "Asia/Ho_Chi_Minh"
    LOG_LEVEL: str = "INFO"
    TAX_RATE: Decimal = Decimal("0")
    # VNPay gateway
    VNPAY_URL: str = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
    VNPAY_TMN_CODE: str = ""
    VNPAY_HASH_SECRET: str = ""
    VNPAY_RETURN_URL: str = "http://localhost:3000/payment/vnpay-return"
    USD_TO_VND_RATE: Decimal = Decimal("25000")
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()

from vapeshop.common.logging_setup import get_logger

logger = get_logger("vapeshop.common")

from agents.technical_analyst.workflow import TechnicalAnalystAgent, build_fallback, build_indicators

"""
파이프라인 모듈 패키지

- SentinelSystem: 캡처 스레드와 분석 루프의 수명주기 관리
- AnalysisLoop: 프레임 분석, 녹화, 프리뷰를 수행하는 컨슈머
- SystemClock: 주입 가능한 시간 소스
"""

"""
라이브 프리뷰 모듈 패키지

- PreviewWindow: OpenCV 창에 녹화 상태 오버레이를 그려 출력
"""

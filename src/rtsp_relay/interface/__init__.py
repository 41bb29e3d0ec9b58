"""
Interface Layer

설정 파일과 데이터베이스 등 외부 입력을 도메인 모델로 변환합니다.
"""

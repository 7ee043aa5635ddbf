from starter.uvicorn_runner import main

if __name__ == "__main__":
    main()

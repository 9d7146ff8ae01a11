from voice_dictation.cli import main

if __name__ == "__main__":
    main()

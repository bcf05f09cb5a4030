from fedora_dotfiles.cli import run

if __name__ == "__main__":
    run()

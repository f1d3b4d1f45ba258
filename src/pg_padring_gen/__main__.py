from pg_padring_gen.cli import app

if __name__ == "__main__":
    app()

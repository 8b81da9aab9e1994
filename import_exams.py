# import_exams.py
import sys
from main import app, db, Group
from exams import import_exams
from sample_exams import exams as exam_list

def run_import(group_name="General"):
    with app.app_context():
        print(f"[INFO] Starting import. Total source exams: {len(exam_list)}")

        group = Group.query.filter_by(name=group_name).first()
        if not group:
            print(f"[ERROR] Group '{group_name}' does not exist. Create it in the app first.")
            return 1
        print(f"[INFO] Using group '{group_name}' (id={group.id}, exams={len(group.exams)})")

        created, imported, skipped = import_exams(group, group.creator, exam_list, skip_duplicates=True)
        db.session.commit()
        print(f"[DONE] Created {created} exams ({imported} questions) in '{group_name}'. "
              f"Skipped {skipped} questions.")
        return 0

if __name__ == "__main__":
    group_name = sys.argv[1] if len(sys.argv) > 1 else "General"
    sys.exit(run_import(group_name))
